"Various utilities"

import os

import click

PROMOTER_PATH = os.path.dirname(__file__)


class Color:
    "Colors for the console"
    @staticmethod
    def red(text):
        "red"
        return click.style(str(text), fg='red')

    @staticmethod
    def green(text):
        "green"
        return click.style(str(text), fg='green')

    @staticmethod
    def yellow(text):
        "yellow"
        return click.style(str(text), fg='yellow')

    @staticmethod
    def bold(text):
        "bold"
        return click.style(str(text), bold=True)


def info(msg):
    "Progress line on stdout"
    click.echo(msg)


def step(msg):
    "Highlighted step header on stdout"
    click.echo(Color.green(msg))


def warning(msg):
    "Warning on stderr"
    click.echo(Color.yellow(msg), err=True)


def read(file_):
    "Read file helper"
    with open(file_, encoding='utf-8') as text_io_wrapper:
        return text_io_wrapper.read()


def promoter_version():
    "Returns the version of branch-promoter"
    return read(os.path.join(PROMOTER_PATH, 'version.txt')).strip()
