from setuptools import setup, find_packages

setup(
    name="gfslayers",
    version="0.1.0",
    description="GFS layer extraction and publishing pipeline",
    author="gfslayers Development Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31",
        "urllib3>=2.0",
        "boto3>=1.28",
        "botocore>=1.31",
        "pydantic>=2.0",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "gfs-update=pipeline.run:main",
        ],
    },
)
