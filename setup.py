from setuptools import setup


setup(
    name="invoice-doctor",
    version="0.3.0",
    description="Settings-driven cleanup for invoice CSV exports: replacements, multi-key sorting, date fixes and appendages",
    packages=["invoice_doctor", "invoice_doctor.stages"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet>=5,<6",
    ],
    entry_points={
        "console_scripts": [
            "invoice-doctor=invoice_doctor.cli:main",
        ]
    },
)
