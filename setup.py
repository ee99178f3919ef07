"""Setup script for PEVI API and SDK."""

from setuptools import find_packages, setup

setup(
    name="pevi",
    version="0.1.0",
    description="Escrow-backed impact campaigns with milestone-gated payouts",
    packages=find_packages(exclude=["tests", "tests.*", "alembic", "alembic.*"]),
    install_requires=[
        "fastapi>=0.110.0",
        "starlette>=0.36.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "sqlalchemy>=2.0.0",
        "alembic>=1.13.0",
        "psycopg2-binary>=2.9.9",
        "httpx>=0.26.0",
        "requests>=2.31.0",
        "click>=8.1.0",
        "prometheus-client>=0.19.0",
        "stellar-sdk>=9.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pevi=pevi_api.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
