"""
Custom exceptions for Firmware Resolver
"""

class FirmwareResolverError(Exception):
    """Base exception for Firmware Resolver"""
    pass

class DescriptorError(FirmwareResolverError):
    """Exception raised when a package descriptor cannot be read or parsed"""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Descriptor error in {path}: {message}")

class DuplicatePackageError(FirmwareResolverError):
    """Exception raised when two package directories declare the same name"""
    def __init__(self, name: str, first_path: str, second_path: str):
        self.name = name
        self.first_path = first_path
        self.second_path = second_path
        super().__init__(
            f"Package '{name}' defined twice: {first_path} and {second_path}"
        )

class PackageNotFoundError(FirmwareResolverError):
    """Exception raised when a package cannot be found in the store"""
    def __init__(self, name: str, requester: str = None):
        self.name = name
        self.requester = requester
        if requester:
            super().__init__(f"Package '{name}' (required by '{requester}') not found")
        else:
            super().__init__(f"Package '{name}' not found")

class PackageHashError(FirmwareResolverError):
    """Exception raised when a package directory cannot be hashed"""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to hash package at {path}: {message}")

class ResolutionError(FirmwareResolverError):
    """Exception raised when a resolution carries unrecoverable issues"""
    def __init__(self, issues: list):
        self.issues = issues
        issue_list = '\n'.join(f"  - {issue}" for issue in issues)
        super().__init__(f"Resolution failed with {len(issues)} error(s):\n{issue_list}")

class ConfigurationError(FirmwareResolverError):
    """Exception raised when configuration values cannot be read or written"""
    def __init__(self, message: str, path: str = None):
        self.message = message
        self.path = path
        if path:
            super().__init__(f"Configuration error at {path}: {message}")
        else:
            super().__init__(f"Configuration error: {message}")

class DependencyGraphError(FirmwareResolverError):
    """Exception raised when dependency graph operations fail"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Dependency graph error: {message}")

class CodegenError(FirmwareResolverError):
    """Exception raised when generated source cannot be written"""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Code generation failed for {path}: {message}")

class CacheError(FirmwareResolverError):
    """Exception raised when the package hash cache cannot be written"""
    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Cache error at {path}: {message}")
