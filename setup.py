"""Setup script for NewsRelay."""

from setuptools import setup, find_packages

setup(
    name="newsrelay",
    version="1.0.0",
    description="Time-windowed cache and quota-limited fetch orchestrator for news and AI providers",
    packages=find_packages(include=["newsrelay", "newsrelay.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.115",
        "uvicorn[standard]>=0.30",
        "gunicorn>=22.0",
        "pydantic>=2.7",
        "pydantic-settings>=2.3",
        "python-dotenv>=1.0",
        "anyio>=4.4",
        "httpx>=0.27",
        "openai>=1.40",
        "pymongo>=4.10",
        "orjson>=3.10",
        "typing_extensions>=4.12",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "respx>=0.21",
        ],
    },
)
