# setup.py
from setuptools import find_packages, setup

setup(
    name="snapybara",
    version="0.1.0",
    description="SnapyBara points-of-interest API: hybrid geo search with area-cell caching",
    packages=find_packages(include=["snapybara", "snapybara.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "alembic>=1.13",
        "psycopg[binary]>=3.1",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=24.1",
        "sentry-sdk>=1.40",
        "slowapi>=0.1.9",
        "limits>=3.7",
        "httpx>=0.27",
        "redis>=5.0.1",
        "cachetools>=5.3",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "anyio>=4.2",
        ],
    },
    include_package_data=True,
)
