from setuptools import find_packages, setup

setup(
    name="console-rental",
    version="0.1.0",
    packages=find_packages(include=["console_rental", "console_rental.*"]),
    package_dir={"": "."},
    python_requires=">=3.10",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "loguru>=0.7.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "prometheus-client>=0.17.0",
        "prometheus-fastapi-instrumentator>=6.1.0",
        "tzdata>=2023.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.24.0",
        ],
    },
)
