from setuptools import setup


setup(
    name="bill-ingest",
    version="0.1.0",
    description="Bulk spreadsheet ingestion and reconciliation for companies and bills",
    packages=["bill_ingest"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "loguru",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "bill-ingest=bill_ingest.cli:main",
        ]
    },
)
