from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="azure-inventory-graph",
    version="0.1.0",
    author="sleroy",
    author_email="your.email@example.com",
    description="Build a cross-referenced entity graph from Azure inventory",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/sleroy/azure_inventory_graph",
    packages=find_packages(exclude=["tests"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pandas>=1.0.0",
        "streamlit>=1.0.0",
        "xlsxwriter>=1.3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "azure-inventory-graph=azure_inventory_graph.cli:main",
        ],
    },
)
