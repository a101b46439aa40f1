from setuptools import setup, find_packages

setup(
    name="equity-analytics",
    version="0.1.0",
    description="Indicators, risk metrics, backtesting and multi-factor scoring for daily equity data",
    author="TradLyte Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "polars>=0.20.0",
        "numpy>=1.22.0",
        "pydantic>=2.0.0",
        "boto3>=1.28.0",
        "psycopg2-binary>=2.9.0",
        "sqlalchemy>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.9",
)
