"""
Setup script for Chainshell.

Install for development with: pip install -e ".[dev]"
"""

from setuptools import find_packages, setup

setup(
    name="chainshell",
    version="0.1.0",
    description="Interactive command shell for a local blockchain node",
    author="Chainshell Team",
    license="MIT",
    python_requires=">=3.10",
    packages=find_packages(include=["chainshell", "chainshell.*"]),
    install_requires=[
        # CLI
        "click>=8.1.0",

        # Security & cryptography
        "cryptography>=42.0.4",

        # Configuration & logging
        "pyyaml>=6.0.2",
        "python-dotenv>=1.0.1",
        "loguru>=0.7.2",

        # Validation
        "pydantic>=2.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.3.0",
            "pytest-cov>=5.0.0",
            "pytest-mock>=3.14.0",
            "ruff>=0.7.0",
            "mypy>=1.13.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chainshell=chainshell.cli.commands:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Security :: Cryptography",
    ],
)
