from setuptools import setup, find_packages

setup(
    name="HaloRelax",
    version="0.1.0",
    description="Distributed 2-D relaxation over a square grid of MPI processes",
    packages=find_packages(include=["halo_relax", "halo_relax.*"]),
    package_data={"halo_relax": ["config/*.json"]},
    python_requires=">=3.10",
    install_requires=[
        "mpi4py",
        "numpy",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["halo-relax=halo_relax.__main__:main"],
    },
    zip_safe=False,
)
