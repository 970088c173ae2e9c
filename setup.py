from setuptools import setup, find_packages

setup(
    name="margeff",
    version="0.1.0",
    description="Marginal effects and level contrasts from posterior draws",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.23",
        "scipy>=1.9",
        "pandas>=1.5",
    ],
    extras_require={
        "bayesian": ["pymc>=5.0", "arviz>=0.15,<1.0"],
        "dev": ["pytest>=7.0", "pytest-cov", "black", "ruff"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],
)
