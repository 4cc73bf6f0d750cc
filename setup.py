from setuptools import setup, find_packages


install_requires = [
    'PyYAML>=3.0',
    'pyproj>=3.1',
    'jsonschema>=4',
    'Pillow>=9',
]

tests_require = [
    'pytest',
    'shapely>=2',
]


def long_description():
    return open('README.md').read()


setup(
    name='OfflineTiles',
    version="1.0.0",
    description='Tile calculation and offline tile cache for ArcGIS tiled map services',
    long_description=long_description(),
    long_description_content_type='text/markdown',
    author='OfflineTiles contributors',
    license='Apache Software License 2.0',
    packages=find_packages(),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'offlinetiles-seed = offlinetiles.seed.script:main',
            'offlinetiles-util = offlinetiles.script.util:main',
        ],
    },
    package_data={'': ['*.json']},
    python_requires='>=3.9',
    install_requires=install_requires,
    extras_require={
        'test': tests_require,
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    zip_safe=False
)
