"""Run the retail-ci command line tool with `python -m retail_ci`."""

from .tool.retail_ci import main

if __name__ == "__main__":
    main()
