from setuptools import setup, find_packages

setup(
    name="near-deploy",
    version="0.1.0",
    description="Deployment runner for NEAR fungible-token and NFT contracts",
    packages=find_packages(exclude=["configs"]),
    package_data={
        "near_deploy": ["configs/schemas/*.json"],
    },
    install_requires=[
        "aiohttp>=3.8.0",
        "pyyaml>=6.0",
        "jsonschema>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "near-deploy=near_deploy.main:main",
        ],
    },
)
