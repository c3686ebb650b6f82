from rdflib import Graph, Namespace
from rdflib.namespace import DC, DCTERMS, FOAF, RDF, RDFS, XSD

SIOC = Namespace("http://rdfs.org/sioc/ns#")
VCARD = Namespace("http://www.w3.org/2006/vcard/ns#")
AS = Namespace("https://www.w3.org/ns/activitystreams#")

PREFIXES = {
    "rdf": RDF,
    "rdfs": RDFS,
    "foaf": FOAF,
    "xsd": XSD,
    "sioc": SIOC,
    "dc": DC,
    "dcterms": DCTERMS,
    "vcard": VCARD,
    "as": AS,
}


def bind_prefixes(graph: Graph) -> Graph:
    for prefix, namespace in PREFIXES.items():
        graph.bind(prefix, namespace, override=True)
    return graph
