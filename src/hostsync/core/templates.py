"""
Static text written by hostsync: the config and ignore templates, the
built-in ignore rules and the man page.
"""

from .models import IgnoreKind, IgnoreRule

CONFIG_TEMPLATE = """\
# hostsync configuration file
#
# Global defaults come first. Every COMMAND block below inherits any key
# it does not set itself. Values are shell-quoted; $HOME and ~ are expanded.

# Remote user configuration
SYNC_REMOTE_USER="{remote_user}"
SYNC_REMOTE_IPS="192.168.1.5,192.168.1.6,192.168.1.7"

# Unison configuration
SYNC_UNISON_PATH="{unison_path}"
# Unison on remote hosts; defaults to the local path of each command
# SYNC_REMOTE_UNISON_PATH="{unison_path}"
SYNC_UNISON_PREF_DIR="$HOME/.unison"

# Ignore patterns (one "Name|Path|Regex <pattern>" rule per line)
SYNC_IGNORE_FILE="{ignore_file}"

# Named commands. A block starts at COMMAND= and ends at the next one.
# Keys: REMOTE_USER, REMOTE_HOSTS, LOCAL_PATH, REMOTE_PATH, EXTRA_OPTIONS,
#       UNISON_PATH, REMOTE_UNISON_PATH, PREF_DIR, IGNORE_FILE

COMMAND="git"
LOCAL_PATH="$HOME/git"
REMOTE_PATH="$HOME/git"

COMMAND="aliases"
LOCAL_PATH="$HOME/.config/lib"
REMOTE_PATH="$HOME/.config/lib"

COMMAND="dotfiles"
LOCAL_PATH="$HOME/.dotfiles"
REMOTE_PATH="$HOME/.dotfiles"

COMMAND="projects"
LOCAL_PATH="$HOME/projects"
REMOTE_PATH="$HOME/projects"

COMMAND="documents"
LOCAL_PATH="$HOME/Documents"
REMOTE_PATH="$HOME/Documents"
# REMOTE_HOSTS="192.168.1.5"
# EXTRA_OPTIONS="-maxsizethreshold 100000"
"""

DEFAULT_IGNORE_RULES = [
    IgnoreRule(kind=IgnoreKind.PATH, pattern=".git"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.log"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="node_modules"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".DS_Store"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.pyc"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="__pycache__"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".pytest_cache"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".coverage"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".idea"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".vscode"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="dist"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="build"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.egg-info"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".env"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".venv"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="venv"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".tox"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".mypy_cache"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".next"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="target"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".gradle"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".sass-cache"),
]

IGNORE_TEMPLATE = "# Default ignore patterns\n" + "".join(
    f"{rule.to_line()}\n" for rule in DEFAULT_IGNORE_RULES
)

# Always written into generated profiles, ahead of the user's rules.
BUILTIN_PROFILE_IGNORES = [
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".git"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".svn"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".hg"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.tmp"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.temp"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*~"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".*.swp"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".*.swo"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern="*.o"),
    IgnoreRule(kind=IgnoreKind.NAME, pattern=".unison.*"),
]

MAN_PAGE = r""".TH HOSTSYNC 1 "" "hostsync {version}" "User Commands"
.SH NAME
hostsync \- synchronize directories between hosts using Unison
.SH SYNOPSIS
.B hostsync
[\fIOPTIONS\fR] \fICOMMAND\fR [\fIUNISON-ARGS\fR...]
.br
.B hostsync bootstrap
(\fBlocalhost\fR|\fIHOST\fR)
.br
.B hostsync config
(\fBget\fR|\fBset\fR \fIPATH\fR|\fBinit\fR [\fIPATH\fR])
.br
.B hostsync status
.SH DESCRIPTION
Runs named synchronization commands defined in the configuration file.
Each command binds a local directory to a remote directory on one or more
hosts. A Unison profile is generated before every run and Unison is
invoked in batch mode, preferring the newer copy of conflicting files.
.SH OPTIONS
.TP
.B \-\-debug
Verbose logging and \fB\-debug all\fR for Unison.
.TP
.B \-\-force
Pass \fB\-force newer\fR to Unison.
.TP
.B \-\-dry\-run
Print the Unison command line without running it.
.TP
.BI \-\-user= USER
Override the remote user.
.TP
.BI \-\-ip= IP
Use only this remote host.
.TP
.BI \-\-unison\-path= PATH
Path to the unison binary.
.TP
.BI \-\-pref\-dir= DIR
Unison preferences directory.
.TP
.BI \-\-ignore\-file= FILE
Ignore pattern file.
.TP
.BI \-\-config= FILE
Use this configuration file.
.SH FILES
.TP
.I ~/.config/sync/config
Default configuration file.
.TP
.I ~/.config/sync/ignore
Ignore patterns, one \fBName\fR, \fBPath\fR or \fBRegex\fR rule per line.
.SH EXIT STATUS
.TP
.B 0
Success.
.TP
.B 1
General error.
.TP
.B 2
Configuration error.
.TP
.B 3
Network error.
"""
