"""
Data Agent Introspection - Setup Configuration
"""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (without optional dependencies)
core_requirements = [
    "pydantic>=2.0.0",
    "pyyaml>=6.0.0",
    "boto3>=1.28.0",
    "botocore>=1.31.0",
    "python-dotenv>=1.0.0",
    "requests>=2.31.0",
]

# Optional database drivers
postgresql_requirements = ["psycopg2-binary>=2.9.0"]
mysql_requirements = ["mysql-connector-python>=8.0.0"]
mssql_requirements = ["pyodbc>=5.0.0"]
db2_requirements = ["ibm_db>=3.2.0"]
oracle_requirements = ["oracledb>=1.3.0"]
bigquery_requirements = ["google-cloud-bigquery>=3.11.0", "google-auth>=2.22.0"]

# OpenAI / Ollama model backends
openai_requirements = ["openai>=1.0.0"]

all_database_requirements = (
    postgresql_requirements
    + mysql_requirements
    + mssql_requirements
    + db2_requirements
    + oracle_requirements
    + bigquery_requirements
)

# Development requirements
dev_requirements = [
    "pytest>=7.0.0",
    "pytest-cov>=4.0.0",
    "black>=23.0.0",
    "isort>=5.12.0",
    "flake8>=6.0.0",
    "mypy>=1.0.0",
]

setup(
    name="data-agent-introspection",
    version="1.0.0",
    author="Data Agent Contributors",
    author_email="",
    description="Multi-engine schema introspection and model-assisted relationship inference",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    python_requires=">=3.9",
    install_requires=core_requirements,
    extras_require={
        "postgresql": postgresql_requirements,
        "mysql": mysql_requirements,
        "mssql": mssql_requirements,
        "db2": db2_requirements,
        "oracle": oracle_requirements,
        "bigquery": bigquery_requirements,
        "openai": openai_requirements,
        "all-databases": all_database_requirements,
        "dev": dev_requirements,
        "all": all_database_requirements + openai_requirements + dev_requirements,
    },
    include_package_data=True,
    keywords=[
        "schema",
        "introspection",
        "database",
        "metadata",
        "relationships",
        "bedrock",
        "claude",
    ],
)
