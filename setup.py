"""Setup script for sparse space-time finite elements for the heat equation."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text() if (this_directory / "README.md").exists() else ""

setup(
    name="sparse-xt-heat",
    version="0.3.0",
    description="Sparse hierarchical least-squares space-time finite elements for the heat equation",
    long_description=long_description,
    long_description_content_type="text/markdown",

    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.12.0",
        "matplotlib>=3.5.0",
        "pyyaml>=6.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Topic :: Scientific/Engineering :: Physics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],

    keywords=[
        "finite-elements", "space-time", "sparse-grids", "least-squares",
        "heat-equation", "pde", "scientific-computing"
    ],

    entry_points={
        "console_scripts": [
            "sparsext-solve=sparsext.cli:main",
        ],
    },

    package_data={
        "sparsext": ["config/*.yaml"],
    },

    include_package_data=True,
    zip_safe=False,
)
