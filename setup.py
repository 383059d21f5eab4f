"""
Setup script for soil_fire_analysis package
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')
else:
    long_description = "Soil carbon and nitrogen response to fire frequency and logging"

setup(
    name="soil_fire_analysis",
    version="0.1.0",
    description="GAM analysis of soil C and N along a fire-frequency gradient in logged and unlogged forest",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Soil Fire Analysis Project",
    packages=find_packages(include=["soil_fire_analysis", "soil_fire_analysis.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20",
        "pandas>=1.3",
        "scipy>=1.10",
        "statsmodels>=0.13",
        "matplotlib>=3.4",
        "seaborn>=0.12",
        "pygam>=0.9",
    ],
    extras_require={
        "parquet": [
            "pyarrow>=8.0",
        ],
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    keywords="soil carbon nitrogen fire logging GAM ecology",
)
