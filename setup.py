import os

from setuptools import setup

here = os.path.abspath(os.path.dirname(__file__))
version = {}
with open(os.path.join(here, "tstables", "_version.py")) as f:
    exec(f.read(), version)

setup(
    name="tstables",
    version=version["tstables_version"],
    description="Typed tables, borrowed views and option flags for tree sequence data",
    license="MIT",
    packages=["tstables"],
    python_requires=">=3.9",
    install_requires=["numpy>=1.23.5", "jsonschema>=3.0.0", "kastore>=0.3.2"],
    extras_require={"test": ["pytest"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
)
