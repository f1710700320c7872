"""Setup script for the ehr-sync package following Cosmic Python pattern."""

from setuptools import setup, find_namespace_packages

setup(
    name="ehr-sync",
    version="1.0.0",
    description="EHR Sync - multi-format clinical record normalization into a FHIR store",
    author="EHR Sync Team",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src"),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn[standard]",
        "pydantic",
        "redis",
        "requests",
        "httpx",
        "Faker",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "pytest-cov",
            "httpx",
            "fakeredis",
        ],
        "dev": [
            "black",
            "flake8",
            "mypy",
            "pre-commit",
        ],
    },
    entry_points={
        "console_scripts": [
            "ehr-sync-api=ehr_sync.entrypoints.sync_api:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
)
