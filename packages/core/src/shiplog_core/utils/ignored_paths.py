# Fragments of build output, lockfiles and CI plumbing. Any path containing
# one of these is noise for release notes, whatever the workflow's filters say.
IGNORED_REPO_PATHS = (
    ".github",
    "build",
    "Cargo.lock",
    "coverage",
    "dist",
    "target",
    "node_modules",
    "package-lock.json",
    "yarn.lock",
)


def is_ignored_path(path: str) -> bool:
    return any(fragment in path for fragment in IGNORED_REPO_PATHS)
