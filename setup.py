from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='GHG',
    version='0.1.0',
    description='Normalize, aggregate and report Scope 1, 2 and 3 greenhouse gas emissions '
                'following the GHG Protocol.',
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages('src'),
    package_dir={'': 'src'},
    keywords=['Climate', 'GHG Protocol', 'Emissions', 'Scope 3'],
    package_data={
        'GHG': [],
    },
    include_package_data=True,
    install_requires=[
                      'numpy>=1.22',
                      'openpyxl>=3.0.9',
                      'openscm-units>=0.5.0',
                      'pandas>=1.4.2',
                      'pint>=0.18',
                      'pydantic>=2.3.0',
                      'typing_extensions>=4.6',
                      ],
    python_requires='>=3.9',
    extras_require={
        'dev': [
            'nose2',
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: Unix",
        "Operating System :: MacOS",
        "Intended Audience :: Developers",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Software Development",
        "Topic :: Office/Business :: Financial",
        "Topic :: Scientific/Engineering"

    ],
    test_suite='nose2.collector.collector',
)
