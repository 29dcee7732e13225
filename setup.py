from setuptools import find_packages, setup

setup(
    name='pylaplace',
    version='0.1.0',
    packages=find_packages(exclude=['*.test']),
    install_requires=[
        'numpy',
        'scipy>=1.9',
        'numpy-indexed',
        'matplotlib',
        'cached-property',
    ],
    extras_require={
        'test': ['pytest'],
    },
    license='LGPL',
    platforms='any',
    zip_safe=False,
)
