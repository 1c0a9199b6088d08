from setuptools import setup, find_packages

setup(
    name="attendance-tracker",
    version="0.1.0",
    packages=find_packages(include=["tracker", "tracker.*"]),
    python_requires=">=3.11",
    install_requires=[
        "beautifulsoup4>=4.12",
        "lxml>=5.0",
        "httpx>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.3",
        "redis>=5.0",
        "sqlalchemy[asyncio]>=2.0",
        "aiosqlite>=0.20",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
