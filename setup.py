#!/usr/bin/env python3
"""
Setup script for datasight
"""
from setuptools import setup, find_packages

setup(
    name="datasight",
    version="1.0.0",
    description="Dataset profiling, statistical insights and chart recommendations",
    packages=find_packages(include=["datasight", "datasight.*"]),
    py_modules=["main"],
    python_requires=">=3.9",
    install_requires=[
        "pandas>=2.0",
        "numpy>=1.24",
        "openpyxl>=3.1",
        "xlrd>=2.0",
        "langgraph>=0.2",
        "fastapi>=0.100",
        "uvicorn>=0.23",
        "pydantic>=2.0",
        "python-multipart>=0.0.6",
        "httpx>=0.25",
        "jinja2>=3.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "datasight=main:main",
        ],
    },
)
