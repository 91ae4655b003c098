"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/binforge/binforge"
KEYWORDS = "build cargo rust workspace staleness install cross-compile toolchain"
HERE = os.path.dirname(os.path.abspath(__file__))


if __name__ == "__main__":
    setup(
        name="binforge",
        version="0.1.0",
        description="Build orchestration for workspaces of several programs",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where=os.path.join(HERE, "src")),
        python_requires=">=3.9",
        install_requires=[
            "psutil",
            "tqdm",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "binforge=binforge.cli:main",
            ],
        },
        include_package_data=True)
