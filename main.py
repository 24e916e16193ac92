import sys

from notebook_search.app import run


if __name__ == "__main__":
    sys.exit(run(sys.argv))
