"""Setup script for Yatra Accommodation."""
from setuptools import setup, find_packages

setup(
    name="yatra-accommodation",
    version="1.0.0",
    description="Room allocation, occupancy and document review for yatra registrations",
    packages=find_packages(include=["yatra", "yatra.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100",
        "uvicorn>=0.23",
        "sqlalchemy>=2.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
)
