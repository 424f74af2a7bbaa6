"""Setup for ConsentHub Python SDK."""

from setuptools import find_packages, setup

setup(
    name="consenthub-sdk",
    version="0.1.0",
    description="ConsentHub API Python SDK",
    packages=find_packages(),
    install_requires=[
        "requests>=2.31.0",
        "tenacity>=8.2.0",
    ],
    python_requires=">=3.11",
)
