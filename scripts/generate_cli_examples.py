from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

EXAMPLES_ROOT = Path("examples/cli-options")
BASE_ARGS = ["--width", "96", "--height", "96", "--grid", "4", "--max-iterations", "64"]


@dataclass
class Expected:
    path: Path
    min_files: int = 1


@dataclass
class Example:
    name: str
    args: list[str]
    expected: list[Expected]
    clean: list[Path] | None = None

    def full_args(self) -> list[str]:
        return [sys.executable, "render_atlas.py", *self.args]


def _example(name: str, *args: str, min_files: int = 1, output: str = "atlas") -> Example:
    output_dir = EXAMPLES_ROOT / name / output
    return Example(
        name=name,
        args=[*BASE_ARGS, *args, "--output", str(output_dir)],
        expected=[Expected(output_dir, min_files=min_files)],
        clean=[EXAMPLES_ROOT / name],
    )


EXAMPLES: list[Example] = [
    _example("defaults"),
    _example("max-iterations", "--max-iterations", "500"),
    _example("resolution", "--width", "160", "--height", "64"),
    _example("grid", "--grid", "6", min_files=6),
    _example("domain", "--x-min", "-0.8", "--x-max", "-0.7", "--y-min", "0.05", "--y-max", "0.15"),
    _example("threshold", "--threshold", "0"),
    _example("format", "--format", "tiff"),
    _example("nested-output", output="deeply/nested/atlas"),
    _example("workers", "--workers", "1"),
    _example("backend", "--backend", "python", "--width", "32", "--height", "32"),
    _example("verbose", "--verbose"),
]


def _ensure_clean(paths: Iterable[Path]) -> None:
    for path in paths:
        if path.exists():
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()


def _verify(example: Example) -> None:
    for expected in example.expected:
        if not expected.path.is_dir():
            raise RuntimeError(f"Expected directory {expected.path} was not created")
        written = [path for path in expected.path.iterdir() if path.name.startswith("mandelbrot_")]
        if len(written) < expected.min_files:
            raise RuntimeError(f"Directory {expected.path} holds {len(written)} tiles, expected at least {expected.min_files}")
        leftovers = [path for path in expected.path.iterdir() if path.suffix == ".part"]
        if leftovers:
            raise RuntimeError(f"Partial files left in {expected.path}: {leftovers}")


def main() -> None:
    EXAMPLES_ROOT.mkdir(parents=True, exist_ok=True)
    for example in EXAMPLES:
        print(f"\n[cli-example] {example.name}")
        _ensure_clean(example.clean or [])
        completed = subprocess.run(example.full_args(), check=False)
        if completed.returncode != 0:
            raise RuntimeError(f"Example {example.name} failed with {completed.returncode}")
        _verify(example)
    print("\nAll CLI examples generated successfully.")


if __name__ == "__main__":
    main()
