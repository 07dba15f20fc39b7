from setuptools import setup, find_packages

setup(
    name="gallery-ingest",
    version="1.0.0",
    description="Media ingestion and derivative generation pipeline for a photo gallery",
    author="Gallery Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "boto3>=1.34.0",
        "pynamodb>=6.0.0",
        "Pillow>=10.0.0",
        "google-api-python-client>=2.100.0",
        "google-auth>=2.23.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "moto[dynamodb,s3,ssm]>=5.0.0",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
)
