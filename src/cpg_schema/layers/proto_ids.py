"""Protocol ids of the default CPG schema.

Ids are unique across the whole schema: properties use 1-99, node types
100-199, edge types 200-249 and constants 300 upwards. Ids are never reused;
removed entries leave a gap.
"""

from __future__ import annotations

from typing import Final

# Properties
VERSION: Final = 1
HASH: Final = 2
CODE: Final = 3
IS_EXTERNAL: Final = 4
INDEX: Final = 5
NAME: Final = 6
FULL_NAME: Final = 7
PARSER_TYPE_NAME: Final = 8
VALUE: Final = 9
CONTENT: Final = 10
AST_PARENT_TYPE: Final = 11
AST_PARENT_FULL_NAME: Final = 12
OVERLAYS: Final = 13
LANGUAGE: Final = 14
ROOT: Final = 15
ORDER: Final = 16
LINE_NUMBER: Final = 17
COLUMN_NUMBER: Final = 18
OFFSET: Final = 19
OFFSET_END: Final = 20
TYPE_FULL_NAME: Final = 21
CANONICAL_NAME: Final = 22
MODIFIER_TYPE: Final = 23
CONTROL_STRUCTURE_TYPE: Final = 24
SIGNATURE: Final = 25
METHOD_FULL_NAME: Final = 26

# Node types
META_DATA: Final = 100
BLOCK: Final = 101
LITERAL: Final = 102
LOCAL: Final = 103
IDENTIFIER: Final = 104
FIELD_IDENTIFIER: Final = 105
MODIFIER: Final = 106
JUMP_TARGET: Final = 107
JUMP_LABEL: Final = 108
METHOD_REF: Final = 109
TYPE_REF: Final = 110
RETURN: Final = 111
CONTROL_STRUCTURE: Final = 112
UNKNOWN: Final = 113
CALL: Final = 114
ANNOTATION: Final = 115
ANNOTATION_PARAMETER_ASSIGN: Final = 116
ANNOTATION_PARAMETER: Final = 117
ANNOTATION_LITERAL: Final = 118
ARRAY_INITIALIZER: Final = 119

# Edge types
REF: Final = 200
AST: Final = 201
CONDITION: Final = 202

# Constants: Languages
LANG_JAVA: Final = 300
LANG_JAVASCRIPT: Final = 301
LANG_GOLANG: Final = 302
LANG_CSHARP: Final = 303
LANG_C: Final = 304
LANG_PYTHON: Final = 305
LANG_LLVM: Final = 306
LANG_PHP: Final = 307
LANG_FUZZY_TEST_LANG: Final = 308
LANG_GHIDRA: Final = 309
LANG_KOTLIN: Final = 310
LANG_NEWC: Final = 311
LANG_JAVASRC: Final = 312
LANG_PYTHONSRC: Final = 313
LANG_JSSRC: Final = 314
# 315 retired
LANG_RUBYSRC: Final = 316
LANG_SWIFTSRC: Final = 317
LANG_CSHARPSRC: Final = 318

# Constants: ModifierTypes
MOD_STATIC: Final = 330
MOD_PUBLIC: Final = 331
MOD_PROTECTED: Final = 332
MOD_PRIVATE: Final = 333
MOD_ABSTRACT: Final = 334
MOD_NATIVE: Final = 335
MOD_CONSTRUCTOR: Final = 336
MOD_VIRTUAL: Final = 337
MOD_INTERNAL: Final = 338
MOD_FINAL: Final = 339
MOD_READONLY: Final = 340
MOD_MODULE: Final = 341
MOD_LAMBDA: Final = 342

# Constants: ControlStructureTypes
CS_BREAK: Final = 360
CS_CONTINUE: Final = 361
CS_WHILE: Final = 362
CS_DO: Final = 363
CS_FOR: Final = 364
CS_GOTO: Final = 365
CS_IF: Final = 366
CS_ELSE: Final = 367
CS_SWITCH: Final = 368
CS_TRY: Final = 369
CS_THROW: Final = 370
CS_MATCH: Final = 371
CS_YIELD: Final = 372
CS_CATCH: Final = 373
CS_FINALLY: Final = 374
