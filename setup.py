from setuptools import setup, find_packages

setup(
    name="commerce-catalog-converter",
    version="0.1.0",
    packages=find_packages(include=["commerce_catalog", "commerce_catalog.*", "configs", "configs.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "numpy>=1.24.0",
        "nltk>=3.8.0",
        "ijson>=3.2.0",
        "psutil>=5.9.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
)
