"""Bump the version in pyproject.toml (through poetry) and mirror it in
tjatools/version.py"""

import argparse
import subprocess

import toml

VERSION_FILE = "tjatools/version.py"


def read_version() -> str:
    with open("pyproject.toml") as f:
        pyproject = toml.load(f)
    return str(pyproject["tool"]["poetry"]["version"])


def write_version_file(version: str) -> None:
    with open(VERSION_FILE, mode="w") as f:
        f.write(f'__version__ = "{version}"\n')


def commit_and_tag(version: str) -> None:
    subprocess.run(["git", "reset"])
    subprocess.run(["git", "add", "pyproject.toml", VERSION_FILE], check=True)
    subprocess.run(["git", "commit", "-m", f"Release tjatools {version}"])
    subprocess.run(["git", "tag", f"v{version}"])


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "rule",
        help="either a semver string or a bump rule (patch, minor ...) for poetry",
    )
    parser.add_argument("--commit", action="store_true", help="commit and tag")
    args = parser.parse_args()

    subprocess.run(["poetry", "version", args.rule], check=True)
    version = read_version()
    write_version_file(version)
    if args.commit:
        commit_and_tag(version)


if __name__ == "__main__":
    main()
