from setuptools import setup, find_packages

setup(
    name="legacyxref",
    version="1.0.0",
    description="Structural extraction, cross-references and migration complexity for legacy COBOL and JCL systems",
    author="Kalmantic Applied AI Lab",
    license="MIT",
    packages=find_packages(include=["legacyxref", "legacyxref.*"]),
    install_requires=[
        "pyyaml>=6.0",
        "jsonschema>=4.20.0",
        "networkx>=3.2.1",
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
            "legacyxref=legacyxref.cli:main",
        ],
    },
    python_requires=">=3.8",
)
