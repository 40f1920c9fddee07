"""
Component classes shared by the iCalendar and vCard codecs.

icalendar keeps properties it has no value type for verbatim. The free-text
properties the bridge writes (notes, vCard names, emails, phones) are mapped
to TEXT here so they are escaped on output and unescaped on input.
"""

from icalendar import Calendar, Component, ComponentFactory, TypesFactory
from icalendar.caselessdict import CaselessDict

TEXT_PROPERTIES = ("X-ALT-DESC", "FN", "EMAIL", "TEL", "NOTE", "X-NEXT-MEETING")


class TextTypesFactory(TypesFactory):
    types_map = CaselessDict({
        **TypesFactory.types_map,
        **{name: "text" for name in TEXT_PROPERTIES},
    })


text_types = TextTypesFactory()


class EventCalendar(Calendar):
    """VCALENDAR that reads X-ALT-DESC as text"""
    types_factory = text_types


class VCard(Component):
    """
    VCARD component.

    Broken property values (a short N, for instance) are kept as raw text
    instead of failing the whole address book.
    """
    name = "VCARD"
    ignore_exceptions = True
    types_factory = text_types
    # Own registry, so parsed VCARDs are instances of this class
    _components_factory = ComponentFactory()


VCard.register(VCard)
