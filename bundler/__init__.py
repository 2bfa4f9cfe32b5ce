from bundler.assembler import assemble
from bundler.errors import AssemblyError, ErrorReason
from bundler.models import AssemblyOptions, DocumentGroup, MergedDocument, SourceFile
from bundler.session import Session, SessionRegistry

__version__ = "0.1.0"
