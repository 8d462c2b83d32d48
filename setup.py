"""Install the website session service."""

from setuptools import setup, find_packages

setup(
    name='identity-web',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    package_data={'identity_web': ['templates/*.html',
                                   'templates/mail/*.txt']},
    install_requires=[
        "flask>=2.3",
        "werkzeug>=2.3",
        "wtforms",
        "email-validator",
        "sqlalchemy",
        "flask-sqlalchemy",
        "redis",
        "pyjwt",
        "python-dateutil",
        "pytz",
        "retry",
        "cryptography",
        "blinker",
        "python-json-logger",
    ],
    extras_require={
        'dev': [
            "fakeredis",
        ],
        'test': [
            "pytest",
            "fakeredis",
        ],
    },
    python_requires='>=3.8',
    zip_safe=False
)
