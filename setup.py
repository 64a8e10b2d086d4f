"""
quantopts Setup

Installs the quantopts package and the ``quantopts`` command:
- quantopts.schema: QuantizationOptions dataclasses and protobuf codecs
- quantopts.resolve: unit precision lookup
- quantopts.api.cli: Typer/Rich command-line interface

The protobuf message classes are generated at runtime from descriptors,
so no protoc step is needed at build time.
"""

from pathlib import Path

from setuptools import find_packages, setup


def get_version() -> str:
    """Read __version__ from quantopts/version.py without importing the package."""
    version_file = Path(__file__).parent / "quantopts" / "version.py"
    for line in version_file.read_text(encoding="utf-8").splitlines():
        if line.startswith("__version__"):
            return line.split("=", 1)[1].strip().strip('"\'')
    raise RuntimeError("Unable to find __version__ in quantopts/version.py")


if __name__ == "__main__":
    setup(
        name="quantopts",
        version=get_version(),
        description="Mixed-precision quantization options schema, codecs and CLI",
        packages=find_packages(include=["quantopts", "quantopts.*"]),
        python_requires=">=3.10",
        install_requires=[
            "protobuf>=4.24",
            "typer>=0.9",
            "rich>=13.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "quantopts=quantopts.api.cli.main:app",
            ],
        },
    )
