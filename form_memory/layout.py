"""Binary layout of the form-letter associative memory file (form.m).

Every structural assumption about the file lives here. The values are
inferred from the allocator routines in the recovered assembly listing
and are provisional; correct them here only.

All multi-byte fields are 16-bit little-endian words, the same width the
string offsets stored elsewhere in the file use.
"""
import struct

# =============================================================================
# ROOT TABLE (file offset 0)
# =============================================================================

ROOT_TABLE_OFFSET = 0x0000
ROOT_TABLE_FORMAT = "<HH"        # active-list root, free-list root
ROOT_TABLE_SIZE = struct.calcsize(ROOT_TABLE_FORMAT)

# =============================================================================
# BLOCK HEADER
# =============================================================================
#
#   +0  u16  next_offset   link to the next header on the same list
#   +2  u16  capacity      allocated payload length in bytes
#   +4  u16  used_length   live content length, <= capacity
#   +6  u8   flags         bit 0 = allocated, bits 1-7 reserved (zero)
#   +7  u8   reserved      must be zero
#
# The payload starts immediately after the header.

HEADER_FORMAT = "<HHHBB"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

FLAG_ALLOCATED = 0x01
FLAGS_RESERVED_MASK = 0xFE

# Offset 0 holds the root table, so no header can live there in a real
# file; a zero link therefore terminates a list.
END_OF_LIST = 0x0000

# Largest value a 16-bit offset or length can take.
WORD_MAX = 0xFFFF
