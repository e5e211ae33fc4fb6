from setuptools import find_packages, setup


setup(
    name="nncc",
    version="0.1.0",
    description="Neural network graph -> standalone C inference code compiler",
    author="Relja",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
    ],
    extras_require={
        "dev": [
            "pytest>=7",
        ],
    },
    zip_safe=False,
)
