"""
Setup script for the job-tracker analytics service.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_namespace_packages

from version import __version__

setup(
    name="job-tracker-analytics",
    version=__version__,
    packages=find_namespace_packages(include=["src", "src.*", "analytics_api", "analytics_api.*"]),
    py_modules=["version"],
    python_requires=">=3.11",
    install_requires=[
        "pymongo>=4.6",
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "requests>=2.31",
        "tenacity>=8.2",
        "json-repair>=0.25",
        "google-genai>=1.0",
        "PyJWT>=2.8",
        "redis>=5.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "pytest-mock>=3.12",
            "httpx>=0.27",
        ],
    },
)
