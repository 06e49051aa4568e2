import os
COMPELL_DIR_NAME = ".compell"
CONFIG_FILE_NAME = "config.yaml"
PROJECT_DIR = os.path.join(os.getcwd(), COMPELL_DIR_NAME)
USER_DIR = os.path.join(os.path.expanduser("~"), COMPELL_DIR_NAME)
SESSIONS_DIR = os.path.join(PROJECT_DIR, "sessions")
PROJECT_CONFIG_PATH = os.path.join(PROJECT_DIR, CONFIG_FILE_NAME)
USER_CONFIG_PATH = os.path.join(USER_DIR, CONFIG_FILE_NAME)

TRACE_FILE_PATH = os.path.join(os.getcwd(), "acp.trace")
