#!/usr/bin/env python3

from setuptools import find_packages, setup


setup(
    name="eth-validator-consolidator",
    version="0.1.0",
    description="Prepare EIP-7251 validator consolidation transactions",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "PyYAML>=6.0",
        "requests>=2.31",
        "tenacity>=8.2",
        "typer>=0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "requests-mock>=1.11",
        ],
    },
    entry_points={
        "console_scripts": [
            "eth-validator-consolidator=eth_validator_consolidator.entrypoint:app",
        ],
    },
    zip_safe=False,
)
