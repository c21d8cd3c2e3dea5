"""
Setup file for the Mock Interview Pipeline package.
"""
from setuptools import setup, find_packages

setup(
    name="interview_pipeline",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "langchain-core>=0.1.0",
        "langchain-google-genai>=0.0.5",
        "pydantic>=2.5.2",
        "python-dotenv>=1.0.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "motor>=3.3.0",
        "pymongo>=4.5.0",
        "slowapi>=0.1.9",
        "click>=8.1.0",
        "aiohttp>=3.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "interview-pipeline=interview_pipeline.cli:cli",
        ],
    },
    python_requires=">=3.9",
    author="AI Interviewer Team",
    author_email="your.email@example.com",
    description="Stage transition engine and API for staged mock interviews",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
