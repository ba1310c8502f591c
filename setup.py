from setuptools import setup, find_packages

setup(
    name="legacyscope",
    version="1.0.0",
    description="Static analysis and migration-difficulty scoring for legacy COBOL, copybooks and ORM mappings",
    author="Kalmantic Applied AI Lab",
    license="MIT",
    packages=find_packages(include=["legacyscope", "legacyscope.*"]),
    install_requires=[
        "pyyaml>=6.0",
        "click>=8.1.7",
        "tqdm>=4.66.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "legacyscope=legacyscope.cli:main",
        ],
    },
    python_requires=">=3.8",
)
