import os

from setuptools import find_packages, setup


# Read README for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Nuclear rupture tracker for time-lapse nucleus imaging"


setup(
    name="nuclear-rupture-tracker",
    version="1.0.0",
    description="Nucleus detection, gap-bridged tracking and rupture analysis for time-lapse microscopy",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    # Package configuration
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "scikit-image>=0.19",
        "opencv-python-headless",
    ],
    extras_require={
        "test": ["pytest"],
    },
    # Console scripts
    entry_points={
        "console_scripts": [
            "nuclei-tracker=nuclei_tracker.app.launcher:main",
        ],
    },
    # Metadata
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: Image Recognition",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
    python_requires=">=3.11",
    keywords="nucleus tracking, nuclear rupture, time-lapse microscopy, watershed, opencv",
)
