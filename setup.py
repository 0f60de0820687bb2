from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="xmlmc-asset-import",
    version="1.0.0",
    author="Service Management Integrations",
    description="Create and update service management asset records from a SQL asset database",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.27.0",
        "pandas>=2.0.0",
        "python-dotenv>=0.19.0",
        "sqlalchemy>=2.0.0",
    ],
    extras_require={
        # source database drivers
        "mssql": [
            "pymssql>=2.2.0",
        ],
        "mysql": [
            "pymysql>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
        "odbc": [
            "pyodbc>=4.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
        "all": [
            "pymssql>=2.2.0",
            "pymysql>=1.0.0",
            "psycopg2-binary>=2.9.0",
            "pyodbc>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "asset-import=asset_import.cli:main",
        ],
    },
)
