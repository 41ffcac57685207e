from setuptools import setup, find_packages


setup(
    name='globepy',
    version='0.1.0',
    description='Spherical triangulation of GeoJSON country polygons '
                'for 3D globe rendering',
    packages=find_packages(include=['globepy', 'globepy.*']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'numba',
    ],
    extras_require={
        'crs': ['pyproj'],
        'tests': ['pytest', 'pyproj'],
    },
)
