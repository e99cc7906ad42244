"""Message templates of compiler project issues.

Project issues are reported by message id only; the human readable text is
looked up here and ``%1``..``%n`` are replaced by the reported arguments.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any, Final

PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"%(\d+)")

MESSAGES: Final[dict[str, str]] = {
    "qx.tool.compiler.class.invalidProperties": "Invalid 'properties' key in class definition",
    "qx.tool.compiler.compiler.missingClassDef": "FATAL Missing class definition - no call to qx.Class.define (or qx.Mixin.define etc)",
    "qx.tool.compiler.compiler.syntaxError": "FATAL Syntax error: %1",
    "qx.tool.compiler.compiler.invalidExtendClause": "FATAL Invalid `extend` clause - expected to find a class name (without quotes or `new`)",
    "qx.tool.compiler.compiler.invalidClassDefinitionEntry": "Unexpected property %2 in %1 definition",
    "qx.tool.compiler.compiler.wrongClassName": "Wrong class name or filename - expected to find at least %1 but only found [%2]",
    "qx.tool.compiler.compiler.membersNotAnObject": "The members property of class %1 is not an object",
    "qx.tool.compiler.application.partRecursive": "Part %1 has recursive dependencies on other parts",
    "qx.tool.compiler.application.duplicatePartNames": "Duplicate parts named '%1'",
    "qx.tool.compiler.application.noBootPart": "Cannot find a boot part",
    "qx.tool.compiler.application.conflictingExactPart": "Conflicting exact match for %1, could be %2 or %3",
    "qx.tool.compiler.application.conflictingBestPart": "Conflicting best match for %1, could be %2 or %3",
    "qx.tool.compiler.application.missingRequiredLibrary": "Cannot find required library %1",
    "qx.tool.compiler.application.missingScriptResource": "Cannot find script resource: %1",
    "qx.tool.compiler.application.missingCssResource": "Cannot find CSS resource: %1",
    "qx.tool.compiler.target.missingAppLibrary": "Cannot find library required to create application for %1",
    "qx.tool.compiler.library.emptyManifest": "Empty Manifest.json in library at %1",
    "qx.tool.compiler.library.cannotCorrectCase": "Unable to correct case for library in %1 because it uses source/resource directories which are outside the library",
    "qx.tool.compiler.library.cannotFindPath": "Cannot find path %2 required by library %1",
    "qx.tool.compiler.build.uglifyParseError": "Parse error in output file %4, line %1 column %2: %3",
    "qx.tool.compiler.webfonts.error": "Error compiling webfont %1, error=%2",
    "qx.tool.compiler.maker.appFatalError": "Cannot write application '%1' because it has fatal errors",
    "qx.tool.compiler.class.blockedMangle": "The mangling of private variable '%1' has been blocked because it is referenced as a string before it is declared",
    "qx.tool.compiler.translate.invalidMessageId": "Cannot interpret message ID %1",
    "qx.tool.compiler.translate.invalidMessageIds": "Cannot interpret message ID %1, %2",
    "qx.tool.compiler.translate.invalidMessageIds3": "Cannot interpret message ID %1, %2, %3",
    "qx.tool.compiler.testForUnresolved": "Unexpected termination when testing for unresolved symbols, node type %1",
    "qx.tool.compiler.testForFunctionParameterType": "Unexpected type of function parameter, node type %1",
    "qx.tool.compiler.defer.unsafe": "Unsafe use of 'defer' method to access external class: %1",
    "qx.tool.compiler.symbol.unresolved": "Unresolved use of symbol %1",
    "qx.tool.compiler.environment.unreachable": "Environment check '%1' may be indeterminable, add to Manifest/provides/environment or use class name prefix",
    "qx.tool.compiler.compiler.requireLiteralArguments": "Wrong class name or filename - expected to find at least %1 but only found [%2]",
    "qx.tool.compiler.target.missingBootJs": "There is no reference to index.js script in the index.html copied from %1",
    "qx.tool.compiler.target.missingPreBootJs": "There is no reference to ${preBootJs} in the index.html copied from %1",
    "qx.tool.compiler.compiler.mixinQxObjectImpl": "%1: Mixins should not use `_createQxObjectImpl`, consider using top-level objects instead",
    "qx.tool.compiler.maker.appNotHeadless": "Compiling application '%1' but the target supports non-headless output, you may find unwanted dependencies are loaded during startup",
    "qx.tool.compiler.webfonts.deprecated": "Manifest uses deprecated provides.webfonts, consider switching to provides.font in %1",
    "qx.tool.compiler.fonts.unresolved": "Cannot find font with name %1",
    "qx.tool.compiler.webfonts.noResources": "Assets required for webfont %1 are not available in application %2, consider using @asset to include %3",
}


def format_message(template: str, args: Sequence[Any]) -> str:
    """Substitute ``%N`` placeholders with the N-th argument (1-based).

    Placeholders without a matching argument are left untouched.
    """

    def substitute(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if 1 <= index <= len(args):
            return str(args[index - 1])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def lookup(message_id: str) -> str | None:
    """Template for message_id, or None for ids outside the table."""
    return MESSAGES.get(message_id)
